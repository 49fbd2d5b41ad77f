"""Infrastructure - database, reference data, note sources, Drive"""
