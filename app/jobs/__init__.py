"""
Jobs application.

Usage:
    from jobs.models import Job, Quote, Category
    from jobs.services import JobService, QuoteService
"""
