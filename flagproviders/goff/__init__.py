"""GO Feature Flag relay proxy provider: options, HTTP API, cache, data collector and hook."""