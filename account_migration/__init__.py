"""
Account Migration

Batch tooling for moving user and customer accounts from a relational
database into a Keycloak-style identity provider.

Supports:
- Database and CSV snapshot record sources
- Account creation with phone/email usernames
- Realm role resolution and bulk assignment
- Temporary password issuance
- Writing the new identity reference back to the source row
- A run-scoped CSV audit trail, and resetting from it
"""

__version__ = "0.1.0"
