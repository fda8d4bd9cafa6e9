"""
Backend package for the Pasokari website.

This package provides a FastAPI application that stores contact-form
inquiries, emails a notification for each one, and serves the product
catalog from a document store.
"""
