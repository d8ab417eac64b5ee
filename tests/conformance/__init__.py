"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the stable-unit engine.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. atomicity.py - All-or-nothing entry points
2. solvency.py - Health factor at or above the minimum after every success
3. conservation.py - Custody matches the collateral and debt ledgers
4. reentrancy.py - No entry point runs inside another

These tests use hypothesis for property-based testing.
"""
