"""
orcabot — conversational quote assistant for condominium access-control
and monitoring services.
"""
