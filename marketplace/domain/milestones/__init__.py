"""Milestone domain - Delivery, approval and payment eligibility"""
