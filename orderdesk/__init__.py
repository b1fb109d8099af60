"""OrderDesk budget-constrained ordering backend."""
