"""JanMitra civic issue reporting API."""
