"""Flight and hardware configuration constants and unit conversions."""