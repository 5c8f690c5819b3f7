"""Channel adapters: webhook codecs and outbound providers for SMS and WhatsApp."""
