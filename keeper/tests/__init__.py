"""
Tests Module: Unit and Integration Tests

Test Coverage:
    - Core types (Status, Result, Stat, config)
    - Callback lifecycle (exactly-once delivery)
    - Watch registry and multi batches
    - Keeper session adapter against a scripted engine
    - AsyncioEventWaiter and the in-memory engine end to end
"""
