"""dnsgate configuration helpers.

Brief:
    Groups YAML config parsing (``dnsgate.config.config_parser``) and logging
    setup (``dnsgate.config.logging_config``).
"""
