"""
Service layer: hierarchy, rule evaluation, approval workflow and the
governance command/query facade.
"""
