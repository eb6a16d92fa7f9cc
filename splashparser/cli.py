import os
import shutil
import argparse

from .codec import Mode, load_picture, save_picture
from .container import PAGE_SIZE, SplashImage

# --- ANSI Colors for Console Output ---
C_INFO  = "\033[96m" # Cyan
C_OK    = "\033[92m" # Green
C_ERR   = "\033[91m" # Red
C_RESET = "\033[0m"

USAGE = """No splash image provided

Usage:
  splashparser <splash image>                                            Extract splash images
  splashparser <splash image> <substitute picture> <substitute index>    Substitute a splash image"""


def report(fail):
    print(f"{C_ERR}{fail.message}{C_RESET}")


def print_block(block, quiet):
    if quiet:
        return
    h = block.header
    print()
    print(f"{C_INFO}Splash index: {block.index}{C_RESET}")
    print(f"Dimensions: {h.width}x{h.height}")
    print("Uncompressed" if h.mode == Mode.RAW else "RLE24 Compression")
    print(f"Bitmap size: {h.pages * PAGE_SIZE}")


def print_summary(stats):
    print(f"\n{C_RESET}=== splashparser Summary ===")
    print("-" * 40)
    print(f"{'Token':<20} | {'Count':>10}")
    print("-" * 40)
    for k, v in sorted(stats.items(), key=lambda x: -x[1]):
        print(f"{k:<20} | {v:10d}")
    print("-" * 40)


def extract_all(image, stem, outdir, quiet=False):
    """Decode every block to <stem>_<index>.bmp. Returns (last index, failures)."""
    last, failures = -1, 0
    for block, fail in image.blocks():
        if fail is not None:
            report(fail); failures += 1
            continue
        last = block.index
        print_block(block, quiet)

        res = image.extract(block)
        if not res.ok:
            report(res.error); failures += 1
            continue

        out_path = os.path.join(outdir, f"{stem}_{block.index}.bmp")
        res = save_picture(res.value, out_path)
        if not res.ok:
            report(res.error); failures += 1
            continue
        if not quiet:
            print(f"{C_OK}Image saved{C_RESET}")
    return last, failures


def substitute_one(image, raster, sub_index, quiet=False):
    """Patch block sub_index with raster. Returns (last index, failures)."""
    last, failures = -1, 0
    for block, fail in image.blocks():
        if fail is not None:
            report(fail); failures += 1
            continue
        last = block.index
        print_block(block, quiet)
        if block.index != sub_index:
            continue

        res = image.substitute(block, raster)
        if not res.ok:
            report(res.error); failures += 1
            continue
        print(f"{C_OK}Substituted - New bitmap size: {res.value.pages * PAGE_SIZE}{C_RESET}")
    return last, failures


def main(argv=None):
    parser = argparse.ArgumentParser(prog='splashparser', description='Extract or substitute splash image pictures')
    parser.add_argument('splash', nargs='?', help='Splash image file')
    parser.add_argument('picture', nargs='?', help='Substitute picture')
    parser.add_argument('index', nargs='?', help='Index of the splash picture to substitute')
    parser.add_argument('-o', '--outdir', default='.', help='Output directory')
    parser.add_argument('--legacy-scan', action='store_true',
                        help='Resume scanning one page after each header (probes payload pages too)')
    parser.add_argument('-q', '--quiet', action='store_true', help='Only print errors and the summary')
    args = parser.parse_args(argv)

    if args.splash is None or (args.picture is None) != (args.index is None):
        print(USAGE)
        return 1

    try:
        src = open(args.splash, 'rb')
    except OSError:
        print(f"{C_ERR}Cannot open splash file or does not exist{C_RESET}")
        return 1

    stem, ext = os.path.splitext(os.path.basename(args.splash))
    substitute = args.picture is not None
    raster, sub_index, sub_path = None, 0, None

    if not os.path.exists(args.outdir): os.makedirs(args.outdir)

    if not substitute:
        fp = src
    else:
        with src:
            res = load_picture(args.picture)
            if not res.ok:
                print(f"{C_ERR}Invalid substitute picture or file does not exist{C_RESET}")
                return 1
            raster = res.value

            try:
                sub_index = int(args.index)
            except ValueError:
                print(f"{C_ERR}Invalid substitute index{C_RESET}")
                return 1

            # Only the copy is ever modified
            sub_path = os.path.join(args.outdir, f"{stem}_MOD{sub_index}{ext}")
            try:
                fp = open(sub_path, 'w+b')
            except OSError:
                print(f"{C_ERR}Cannot create modified splash image file{C_RESET}")
                return 1
            try:
                shutil.copyfileobj(src, fp)
            except OSError:
                fp.close()
                os.remove(sub_path)
                print(f"{C_ERR}Cannot create modified splash image file{C_RESET}")
                return 1

    image = SplashImage(fp, skip_payload=not args.legacy_scan)
    try:
        if substitute:
            last, failures = substitute_one(image, raster, sub_index, args.quiet)
        else:
            last, failures = extract_all(image, stem, args.outdir, args.quiet)
        image.flush()
    except OSError as e:
        print(f"{C_ERR}Cannot access splash file ({e}){C_RESET}")
        last, failures = -1, 1
    finally:
        fp.close()

    invalid = failures > 0
    if last < 0:
        print(f"{C_ERR}Image contains no splash pictures{C_RESET}")
        invalid = True
    elif substitute and not 0 <= sub_index <= last:
        print(f"{C_ERR}Substitute index does not exist in the image{C_RESET}")
        invalid = True

    if substitute and invalid:
        try:
            os.remove(sub_path)
        except OSError:
            print(f"{C_ERR}Cannot remove {sub_path}{C_RESET}")

    print_summary(image.codec.stats)
    print()
    print("Done")
    return 1 if invalid else 0
