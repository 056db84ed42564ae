"""Settings and domain models"""
