"""
Automated Observation System

This package turns predicted passes into captures and decoded results.

Components:
- orchestrator.py: per-pass state machine (capture, register, decode)
- scheduler.py: ObservationScheduler, plans passes and registers jobs
- models.py: pass windows, satellite descriptors and observation records
"""
