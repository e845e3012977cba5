"""API Resilience Implementations.

Contains the policy registry, backoff calculation, outcome classification,
the retry executor and the method-based dispatcher.
Bounded Context: API Resilience
"""
