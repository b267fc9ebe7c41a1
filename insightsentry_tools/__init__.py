"""InsightSentry REST tools, calculations and streaming clients."""
