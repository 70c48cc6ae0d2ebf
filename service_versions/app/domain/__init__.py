"""
Release domain: models, normalization, freshness orchestration and views.
"""
