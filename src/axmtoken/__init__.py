"""axmtoken -- OAuth access tokens for Apple Business and School Manager.

This package turns a locally held EC P-256 private key into a signed JWT
client assertion, exchanges that assertion for a short-lived access token
at Apple's OAuth endpoint, and tracks each credential's lifecycle. Users
register a *configuration* (client id, key id, service) together with the
private key, then generate and refresh tokens from the command line.

Typical workflow::

    axmtoken add "Acme ABM" --client-id BUSINESSAPI.123 --key-id KID1 \
        --key-file key.pem --service business
    axmtoken list
    axmtoken devices "Acme ABM"

Modules:
    app: Typer application factory and CLI entry point.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration and configuration-record storage.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    services: Construction of the long-lived service objects.
"""

__version__ = "0.1.0"
