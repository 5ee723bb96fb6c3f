"""
Conversational onboarding interview engine.
"""
