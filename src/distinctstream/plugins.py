TRANSFORMS_EP = "distinctstream.transforms"
