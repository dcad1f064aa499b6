"""Test suite for store_tenancy."""
