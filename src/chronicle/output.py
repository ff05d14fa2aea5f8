from .utils import write_json


def produce_output(segments, groups=None, options=None):
    """Assemble the vis.js Timeline document; groups and options pass through untouched."""
    document = {"items": [segment.to_output() for segment in segments]}
    if groups is not None:
        document["groups"] = groups
    if options is not None:
        document["options"] = options
    return document


def write_output(path, document):
    write_json(path, document, indent="\t")
