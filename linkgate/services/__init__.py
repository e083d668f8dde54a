"""
Services for challenge issuance and verification, record keeping and the
admin rate-limit proxy. Endpoints stay thin and delegate here.
"""
