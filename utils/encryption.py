"""
Encryption utilities for the Campus Portal
Keeps admin-issued passwords readable by administrators until first change
"""

import base64
import logging
import os

from cryptography.fernet import Fernet, InvalidToken
from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

class PasswordEncryption:
    """Handle password encryption and decryption"""

    def __init__(self):
        self._cipher_suite = None
        self._key = None

    def _resolve_key(self):
        key = None
        if has_app_context():
            key = current_app.config.get('ENCRYPTION_KEY')
        key = key or os.environ.get('ENCRYPTION_KEY')
        if not key:
            # Process-local key; issued credentials become unreadable after a restart
            key = Fernet.generate_key().decode()
            logger.warning("ENCRYPTION_KEY not set, using a temporary key for this process")
        return key

    @property
    def cipher_suite(self):
        if self._cipher_suite is None:
            key = self._resolve_key()
            if isinstance(key, str):
                key = key.encode()
            self._cipher_suite = Fernet(key)
        return self._cipher_suite

    def encrypt_password(self, password):
        """Encrypt a password for storage"""
        encrypted_password = self.cipher_suite.encrypt(password.encode())
        return base64.urlsafe_b64encode(encrypted_password).decode()

    def decrypt_password(self, encrypted_password):
        """Decrypt a password for display"""
        try:
            encrypted_bytes = base64.urlsafe_b64decode(encrypted_password.encode())
            decrypted_password = self.cipher_suite.decrypt(encrypted_bytes)
            return decrypted_password.decode()
        except (InvalidToken, ValueError):
            logger.error("Stored credential could not be decrypted with the current key")
            return None

# Global instance
password_encryptor = PasswordEncryption()
