"""
Kadi - Leitner flashcard trainer API.
"""
