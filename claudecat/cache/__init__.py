"""An LRU cache, a file-content cache and an on-disk cache of usage file summaries."""