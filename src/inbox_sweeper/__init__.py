"""Gmail inbox sync with AI classification, unsubscribe automation and live updates."""
