# unison2d

Building blocks for 2D games in pure Python:

- **Soft-body physics** with XPBD (Extended Position-Based Dynamics):
  `unison2d.softbody.XPBDSoftBody` (edge and area constraints, damping, energy and
  bounding-box queries), `unison2d.contact` for flat-ground and terrain contact with
  friction and restitution plus the per-substep driver functions,
  `unison2d.spatial_hash.SpatialHash` for grid neighbourhood queries, and
  `unison2d.collision.CollisionSystem` for vertex-against-edge collisions between many
  bodies, with kinematic-body support.
- **View and image types**: `unison2d.camera.Camera` (bounds, visibility,
  screen/world conversion), `unison2d.sprite.Sprite` and `SpriteSheet`, and the texture
  types in `unison2d.texture` (`TextureId`, `TextureFormat`, `TextureFilter`,
  `TextureWrap`, `TextureDescriptor`).
- **Image decoding** with `unison2d.imaging.decode_image`, which turns PNG, JPEG, GIF,
  BMP or WebP bytes into an RGBA8 `TextureDescriptor` and raises `ImageDecodeError` on
  bad input.
- **A hierarchical profiler** in `unison2d.profiler` with nested scopes, per-thread
  state and a frame-budget report.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Soft bodies

```python
from unison2d.softbody import XPBDSoftBody
from unison2d.contact import substep

# A unit square made of two triangles.
vertices = [0.0, 0.0, 1.0, 0.0, 1.0, 1.0, 0.0, 1.0]
triangles = [0, 1, 2, 0, 2, 3]
body = XPBDSoftBody(vertices, triangles, 1000.0, 1e-6, 1e-5)

dt = 1.0 / 60.0 / 8.0
for _ in range(8):
    substep(body, dt, -9.8, -2.0)  # ground at y = -2

print(body.lowest_y(), body.kinetic_energy())
```

`XPBDSoftBody.from_material(vertices, triangles, young_modulus, density)` derives the
compliances from a Young's modulus instead. For terrain of variable height, use
`substep_pre_with_terrain` with a height function and a normal function of x, then
`substep_post`.

## Collisions between bodies

```python
from unison2d.collision import CollisionSystem

system = CollisionSystem(0.05)
system.prepare(bodies)                                # once per frame
resolved = system.resolve_collisions(bodies, [], 3)   # per substep
```

Pass a list of booleans as the second argument to mark bodies as kinematic: they take
part in collisions but are never moved. `solve_collisions(bodies)` prepares and resolves
in one call.

## Camera, sprites and textures

```python
from unison2d.camera import Camera
from unison2d.sprite import SpriteSheet
from unison2d.texture import TextureId

camera = Camera(20.0, 15.0)
camera.set_position(3.0, 1.0)
print(camera.bounds())
print(camera.world_to_screen(3.0, 1.0, 800.0, 600.0))

sheet = SpriteSheet(TextureId(1), 256, 256, 64, 64)
print(sheet.frame_uv(5))
```

## Decoding images

```python
from unison2d.imaging import decode_image

with open("sprite.png", "rb") as f:
    desc = decode_image(f.read())
print(desc.width, desc.height, len(desc.data))
```

## Profiling

```python
import time
from unison2d.profiler import current, profile_scope, set_time_fn

set_time_fn(lambda: time.perf_counter() * 1000.0)
profiler = current()
profiler.set_enabled(True)

profiler.begin_frame()
with profile_scope("physics"):
    ...
profiler.end_frame()

print(profiler.format_stats())
```

## What this package does not do

It draws nothing. There is no renderer, no render-command types, no blend modes and no
render targets: the camera, sprite and texture types describe what to draw, and a
drawing back end has to be supplied separately. There is also no window, input
handling, game loop, world or object system, and no mesh generators; soft bodies are
built from vertex and triangle lists you provide.