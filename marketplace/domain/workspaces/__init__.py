"""Workspace domain - Provisioning and role-restricted collaboration views"""
