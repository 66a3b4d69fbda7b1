"""Coaching Service business logic package.

One module per entity family. Every operation is a plain async function taking
the shared ``RemoteDataClient`` as first argument and keyword-only scoping
arguments.
"""
