"""City snowfall and cold-temperature leaderboards from NOAA daily observations."""
