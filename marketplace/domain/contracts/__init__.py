"""Contract domain - Drafting, bilateral signing and completion"""
