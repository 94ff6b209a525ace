"""Authentication primitives.

Learn: Three pieces, all free of database access:
1. password — bcrypt hashing + constant-time verification
2. tokens — one-time random tokens and signed JWT session tokens
3. dependencies — FastAPI Depends() that turn a bearer token into an account id
"""
