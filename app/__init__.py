"""SolarPulse: solar flare activity versus market volatility."""
