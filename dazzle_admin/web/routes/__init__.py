"""HTTP routers (auth, admin pages, approvals)."""
