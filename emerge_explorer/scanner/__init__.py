"""
emerge.log line scanning.

Turns raw emerge.log lines into timestamped tokens without looking at the
package payload yet:

    from emerge_explorer.scanner.line_scanner import LineScanner

    token = LineScanner.scan_line("1700000000:  >>> emerge (1 of 2) app-misc/foo-1.0 to /")
    print(token.kind, token.timestamp)

Also provides the date helpers used to bound an analysis (unix timestamps,
absolute dates, "2 weeks ago" style spans) and a line source that reads
rotated logs compressed with gzip, bzip2 or xz.
"""
