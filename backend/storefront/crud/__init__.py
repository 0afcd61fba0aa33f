"""
CRUD Operations
===============

Database operations, one module per resource. Route handlers stay thin: they
resolve the caller, call into these modules and shape the response.

Functions take the request's ``Session`` first, commit the work they were
asked to do, and raise ``storefront.errors.StoreError`` subclasses for
requests the store refuses.
"""
