"""Storage - domain models"""
