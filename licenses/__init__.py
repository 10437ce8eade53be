"""
Licenses module - License lifecycle and conflict resolution.

This module handles:
- License entity, scope and the status state machine
- Validation, conflict detection and fee calculation
- Approval, signatures, amendments, extensions and renewals
- Automated lifecycle sweeps
"""
