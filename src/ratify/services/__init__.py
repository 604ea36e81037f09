"""Services package.

Import services from their modules; this package stays import-light because
the catalog model depends on ``ratify.services.exceptions``.
"""
