# Kept import-free: the Lambda archive ships this package without pulumi.
__version__ = "0.1.0"
