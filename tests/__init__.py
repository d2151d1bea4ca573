"""
Test package for PPG signal quality assessment.

Covers:
- Feature extraction contract (length, edge cases, pinned values)
- Classifier adapter lifecycle and artifact loading
- Orchestrator gating, single-flight and failure handling
- Result publisher ordering
"""
