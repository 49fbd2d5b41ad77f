"""Utilities for meeting metadata normalization"""
