"""Build vis.js timelines from Wikidata time statements."""
