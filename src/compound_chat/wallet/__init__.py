"""Wallet custody for CompoundChat.

BIP39/BIP44 key derivation, AES-256-GCM encryption at rest with a per-account
HKDF key, and a scoped unlock that wipes decrypted key material on exit.
"""
