# Status API
