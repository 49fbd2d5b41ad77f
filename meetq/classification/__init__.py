"""Classification - rules, matchers, scoring, AI adapter, orchestrator"""
