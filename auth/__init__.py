"""auth/ -- Credential verification and identity token issuance for mintgate.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/ or core/.
api/ and the CLI import from auth/, not the other way around.
"""
