# chatlog

A library of building blocks for tools that read and archive chat history:

- **Time expressions** (`chatlog.timeutil`): turn text such as `2020-01-01`,
  `2020Q1`, `last-7d`, `3d-ago`, `yesterday` or `2020-01-01~2020-01-31` into
  points in time and time ranges.
- **Image decoding** (`chatlog.dat2img`): recover JPEG, PNG, GIF, TIFF and
  BMP images from XOR-obfuscated `.dat` files. The newer layout, which
  combines AES and XOR, is handled too.
- **Decompression** (`chatlog.compress`): LZ4 block and Zstandard frame
  decompression.
- **File monitoring** (`chatlog.filegroup`, `chatlog.filemonitor`): watch
  groups of files, each selected by a regular expression under a root
  directory, and run callbacks when they change.
- **Temporary copies** (`chatlog.filecopy`): keep an up-to-date private copy
  of a file that another program may hold open.
- **Configuration** (`chatlog.config`, `chatlog.defaults`): a JSON-backed
  configuration store, and a helper that fills empty dataclass fields from
  declared defaults.
- Helpers for strings, sizes, directories, application metadata and version
  information.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Time expressions

```python
from chatlog.timeutil import time_of, time_range_of, perfect_time_format

time_of("2020-01-01/12:34")      # 2020-01-01 12:34 local time
time_of("1577836800")            # a Unix timestamp in seconds
time_range_of("2020Q1")          # 2020-01-01 00:00:00 to 2020-03-31 23:59:59.999999
time_range_of("last-7d")         # start of the day a week ago to the end of today
time_range_of("2020-01-31~2020-01-01")  # the two ends are put in order
```

Both functions return timezone-aware `datetime` values. They raise
`ValueError` for text they do not recognise.

Accepted forms:

- Unix seconds, from `1000000000` to `253402300799`
- `YYYYMMDD` and `YYYY-MM-DD`
- a date followed by `/HH:MM`
- `YYYYMMDDHHMM` and `YYYYMMDDHHMMSS`
- RFC 3339, with or without seconds
- years (`YYYY`), months (`YYYYMM`, `YYYY-MM`) and quarters (`YYYYQn`)
- relative times (`5h-ago`, `3d-ago`, `1w-ago`, `1m-ago`, `1y-ago`,
  `0d-ago`, and durations such as `90m-ago`)
- the words `now`, `today`, `yesterday`, `this-week`, `last-week`,
  `this-month`, `last-month`, `this-year`, `last-year` and `all`

Years must lie between 1970 and 9999, and dates must exist. `20190229`, for
example, is rejected.

`time_range_of` also accepts:

- `all`
- `last-<n>d`, `last-<n>w`, `last-<n>m` and `last-<n>y`
- two points joined by `~`, `,` or ` to `

A single point widens to the whole day, month, quarter or year that it names.
A point given to the second, minute or hour widens to its day.

`TimeGranularity` lists the granularities a point can carry.

`perfect_time_format(start, end)` returns the shortest `strftime` format
that still tells the times in a range apart:

- `"%Y-%m-%d %H:%M:%S"` when the range spans years
- `"%m-%d %H:%M:%S"` when it spans days
- `"%H:%M:%S"` otherwise

An end exactly at midnight counts as the last second of the day before.

## Decoding `.dat` images

```python
from pathlib import Path
from chatlog.dat2img import dat_to_image, scan_and_set_xor_key

scan_and_set_xor_key("/path/to/attachments")   # learn the key from *_t.dat thumbnails
image, ext = dat_to_image(Path("photo.dat").read_bytes())
Path(f"photo.{ext}").write_bytes(image)
```

`dat_to_image` returns the decoded bytes and an extension: `jpg`, `png`,
`gif`, `tiff` or `bmp`. It raises `ValueError` when the data is too short
or of an unknown type.

`dat_to_image_v4(data, aes_key)` decodes the AES + XOR layout with a given
key. Its XOR part uses the module's key, which `scan_and_set_xor_key` updates
and returns. `ImageFormat` describes the recognised file signatures.

## Decompression

```python
from chatlog.compress import lz4_decompress, zstd_decompress

lz4_decompress(block)   # raw LZ4 block; output may be at most four times the input
zstd_decompress(frames) # one or more concatenated Zstandard frames
```

Both functions raise `ValueError` on bad data.

## Watching files

```python
from chatlog.filemonitor import FileMonitor

monitor = FileMonitor()
group = monitor.create_group("db", "/path/to/data", r".*\.db$", ["backup"])
group.add_callback(lambda event: print(event.name, event.op))
monitor.start()
...
monitor.stop()
```

How monitoring works:

- The monitor watches each group's root directory, and every directory that
  holds a matching file.
- When a matching file appears elsewhere, the monitor starts watching that
  file's directory as well.
- New directories are added to the watch as they are created.
- Each callback gets a `FileEvent` (`name`, `op`) and runs in its own thread.
- `set_blacklist` gives substrings that keep directories from being watched.
- `refresh_watches` rescans the groups.

Methods of `FileMonitor`:

- `add_group`
- `remove_group`
- `get_group`
- `get_groups`
- `is_running`

A `FileGroup` can also be used on its own:

- `match(path)` tells whether a path lies under the root, matches the
  pattern and contains no blacklisted substring.
- `list_files()` scans the root directory.
- `list_matching_directories()` returns the directories that hold matching
  files.

## Temporary copies

```python
from chatlog.filecopy import TempCopier, get_temp_copy

path = get_temp_copy("/path/to/data/message.db")

with TempCopier("/tmp/mycopies", deletion_delay=10) as copier:
    path = copier.get_temp_copy("/path/to/data/message.db")
```

How copies are kept:

- The same copy is returned as long as the original keeps its modification
  time and size.
- When the original changes, a fresh copy is made.
- Superseded copies are deleted in the background after the delay, which is
  30 seconds by default.
- The mapping from originals to copies is saved in `file_mappings.json` in
  the copy directory, so a later run can reuse copies that are still current.
- `cleanup_temp_files()` schedules the deletion of stray copies.
- `close()` stops the background work.

## Configuration

```python
from dataclasses import dataclass, field
from chatlog.config import ConfigStore

@dataclass
class Settings:
    http_addr: str = field(default="", metadata={"default": "127.0.0.1:5030"})

store = ConfigStore("chatlog", "json", "")   # ~/.chatlog/chatlog.json
conf = Settings()
store.load(conf)                   # creates the file if missing, then fills defaults
store.set("http_addr", "0.0.0.0:5030")
store.settings()
```

`ConfigStore` supports JSON only. Keys are stored in lower case, and `set`
accepts dotted keys for nested values. Other methods:

- `load_file(file, conf)` reads a given file and sends later writes to it.
- `reset()` writes an empty file.

`chatlog.defaults.set_default(value)` fills the zero-valued fields of a
dataclass from the strings stored under the `"default"` metadata key.
Simple types parse the string directly; nested dataclasses, lists, dicts and
optional fields parse it as JSON. `set_default_tag(tag)` changes the
metadata key.

## Other helpers

- `chatlog.osutil`:
  - `find_files_with_patterns(directory, pattern, recursive)`
  - `default_work_dir(account)`
  - `get_dir_size(directory)`
  - `byte_count_si(size)` gives values such as `1.5 MB`
  - `prepare_dir(path)`
- `chatlog.strutil`:
  - `is_normal_string`
  - `must_any_to_int`
  - `is_numeric`
  - `split_int64_to_two_int32`
  - `str2list`, which splits, trims and removes duplicates
- `chatlog.appver`: `read_app_info(file_path)` returns an `AppInfo`. On
  macOS the version and copyright come from the application bundle's
  `Info.plist`; on other systems only the path is recorded.
- `chatlog.version`: `VERSION`, and `get_more(mod)`, which describes the
  running version or, with `mod`, the installed dependencies.

## What this package does not do

This package is a library only. It has:

- no command-line program
- no HTTP server
- no terminal interface

It does not locate, decrypt or read chat databases themselves. It does not
convert voice messages to audio files. It reads application version details
only on macOS.