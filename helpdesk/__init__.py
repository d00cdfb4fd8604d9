"""Multi-tenant helpdesk backend."""
